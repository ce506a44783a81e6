# Routes package init
"""
BookNet Backend — API Routes Package
=====================================

Route Inventory:
    - books.py:      /api/books...     (listing, creation, lending operations)
    - feedbacks.py:  /api/feedbacks... (leave and list feedback)
    - health.py:     GET /health       (service health check)

Routes stay THIN: resolve the acting user, call a service, return its
result. Lending rules live in services/lending_service.py only.
"""
