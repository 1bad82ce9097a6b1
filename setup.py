"""
Setup configuration for REPOSITORY_FRAMEWORK package.
"""

from pathlib import Path

from setuptools import find_packages, setup

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")

setup(
    name="repository-framework",
    version="0.1.0",
    description="Generic async repository pattern over SQL, MongoDB, blob stores and REST APIs",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "motor>=3.0.0",
        "pymongo>=4.0.0",
        "pydantic>=2.0.0",
        "sqlalchemy[asyncio]>=2.0.0",
        "boto3>=1.28.0",
        "azure-storage-blob[aio]>=12.19.0",
        "azure-identity>=1.15.0",  # DefaultAzureCredential for blob storage
        "httpx>=0.25.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "aiosqlite>=0.19.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    keywords="repository pattern database sqlalchemy mongodb s3 azure rest",
    include_package_data=True,
)
