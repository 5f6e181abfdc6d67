"""Install the Zoints account and ledger service."""

from setuptools import setup, find_packages

setup(
    name='zoints-ledger',
    version='0.1.0',
    packages=find_packages('.', exclude=['*test*']),
    install_requires=[
        "cryptography",
        "email-validator",
        "flask",
        "flask-sqlalchemy",
        "pyjwt",
        "python-json-logger",
        "pytz",
        "redis",
        "retry",
        "sqlalchemy",
        "werkzeug",
        "wtforms",
    ],
    extras_require={
        'test': [
            "fakeredis",
            "hypothesis",
            "pytest",
        ],
    },
    zip_safe=False
)
