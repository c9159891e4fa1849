"""Core business logic for user administration.

Independent of Flask: the request handler is shared by the Flask blueprint
and the Lambda entry point.

Module Structure:
    - cognito/        : Cognito user pool admin client and services
    - reconciler.py   : Group membership delta computation and application
    - models.py       : Validated request types and the user record
    - validators.py   : Field-level input validation
    - user_handler.py : Method dispatch, CORS headers, error-to-status mapping
    - rbac.py         : Session and group-claim helpers for the console (Flask)

Import explicitly when needed:
    from usermanager.core.user_handler import UserRequestHandler
    from usermanager.core.reconciler import reconcile_groups
"""
