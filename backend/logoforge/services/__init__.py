"""
LogoForge Backend — Services Layer
====================================

What:  Business logic between the routes (HTTP) and the database.

Service Inventory:
    - zorder:          dense z_index maintenance (planners + locked apply)
    - renderer:        logo → SVG document, pure and deterministic
    - snapshot:        logo ⇄ self-contained JSON document (versions, templates)
    - references:      asset and font ids of layer payloads must exist
    - media_base:      MediaService interface
    - cloudinary_service / local_media_service: its two implementations
    - logo_service, layer_service, template_service, asset_service,
      export_service: one orchestrator per API resource
"""
