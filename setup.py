"""
Setup script for the course shop API
"""
from setuptools import setup, find_packages

setup(
    name="course_shop",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10,<3.14",
    install_requires=[
        "fastapi>=0.110,<0.120",
        "uvicorn[standard]>=0.27",
        "sqlalchemy>=2.0",
        "psycopg2-binary>=2.9",
        "pydantic[email]>=2.5",
        "python-jose[cryptography]>=3.3",
        "bcrypt>=4.0",
        "httpx>=0.26",
        "redis>=5.0",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
        ],
    },
)
