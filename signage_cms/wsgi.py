"""
WSGI Entry Point for the Signage CMS.

    gunicorn -w 4 -b 0.0.0.0:8000 signage_cms.wsgi:application
"""

from signage_cms.app import create_app

application = create_app()
app = application

if __name__ == "__main__":
    application.run()
