"""
appdeploy - single-host application deployment.

Validates an uploaded bundle, deploys it into the application directory and
rolls back to the previous copy when a redeploy fails.
"""

__version__ = '1.0.0'
