"""
LogoForge Backend — API Routes Package
========================================

Route Inventory:
    - logos.py:     /api/logos, /api/logos/{id}/versions
    - layers.py:    /api/logos/{id}/layers, /api/layers/{id}[/payload|/reorder]
    - templates.py: /api/templates, /api/templates/categories, /{id}/use
    - assets.py:    /api/assets, /api/fonts, /media/{path}
    - export.py:    /api/logos/{id}/export.svg|.png, /api/logos/{id}/thumbnail
    - health.py:    /health

Routes are thin: they read the request, call one service method and shape
the response. Business rules live in services/.
"""
