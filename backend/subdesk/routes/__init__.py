"""
SubDesk Backend — API Routes Package
======================================

Route Inventory (paths match the existing frontend, no /api prefix):
    - subscribers.py: POST /submit-user, GET /get-users,
                      PUT /update-status/{id}, DELETE /delete-user/{id}
    - auth.py:        POST /admin-login
    - blogs.py:       GET /get-blogs, GET /blogs, GET /blogs/{id},
                      POST /add-blog, PUT /update-blog/{id}, DELETE /delete-blog/{id}
    - location.py:    GET /get-location
    - cron.py:        POST /cron/reconcile, POST /cron/send-reminders
    - health.py:      GET /health

Routes stay thin: parse the request, check auth, call a service.
"""
