from setuptools import setup, find_packages

setup(
    name="signage-cms",
    version="0.1.0",
    description="Digital signage backend: media folders, playlists, players and play analytics",
    author="Matt Skillman",
    packages=find_packages(include=["signage_cms", "signage_cms.*"]),
    python_requires=">=3.9",
    install_requires=[
        "Flask>=3.0",
        "Flask-SQLAlchemy>=3.1",
        "SQLAlchemy>=2.0",
        "Flask-Migrate>=4.0",
        "Flask-Login>=0.6.3",
        "Flask-Limiter>=3.5",
        "flask-talisman>=1.1.0",
        "Werkzeug>=3.0",
        "boto3>=1.28",
        "botocore>=1.31",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
        "dev": [
            "pytest>=7.4.0",
            "black>=23.0.0",
            "pylint>=2.17.0",
        ],
    },
)
