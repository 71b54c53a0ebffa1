"""
SubDesk Backend — Services Layer
==================================

Business logic between the HTTP routes and the database. Routes parse and
authorize; services apply the rules and return response schemas.

Service Inventory:
    - lifecycle:            pure plan/due-date/lapse/reminder rules
    - SubscriberService:    signup, listing, status changes, deletion, lapse reconciliation
    - ReminderService:      daily renewal reminders and the operator summary
    - AuthService:          admin login
    - BlogService:          blog posts and sections
    - LocationService:      country lookup with retry and circuit breaker
    - MailService:          SMTP delivery; email_templates builds the messages
    - scheduler:            optional in-process daily run

Modules are imported directly (no re-exports here) so models can import
lifecycle enums without pulling in the rest of the layer.
"""
