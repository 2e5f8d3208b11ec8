"""Authentication and authorization.

Learn: Two gating strategies share one decision type:
1. Sessions → email/password → JWT access token → Identity → role checks
2. Capability tokens → password reset links, where holding an unexpired
   token is the authorization

Both end in an AccessDecision (Allow | Deny) evaluated by auth.access.
"""
