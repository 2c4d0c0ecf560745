"""
                        Services Module

Business logic for table tracking.

Services:
    - tracking: submissions, status transitions, lookups and analytics
    - notifications: composing, storing and pushing staff notifications
      (Mock push sink in development, Redis in production)
"""
