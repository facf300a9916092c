"""
SchoolDesk Backend — API Routes Package
=========================================

Route Inventory:
    - schools.py: GET/POST       /api/schools
                  GET            /api/schools/search/{term}
                  GET/PUT/DELETE /api/schools/{id}
    - health.py:  GET            /api/health
    - images.py:  GET            /schoolImages/{filename}   (local storage only)

Routes stay THIN: read the request, call SchoolService, wrap the result.
Business rules live in the service.
"""
