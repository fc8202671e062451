"""Admin Console Flask Application Package.

To use the Flask app:
    from admin_console.flask_app import create_app

To use the directory service without Flask (CLI, scripts):
    from admin_console.core.directory import DirectoryService
"""
# Note: flask_app is not imported here so CLI scripts only pull in
# admin_console.core and its requests-based Keycloak client
