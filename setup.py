"""Setup configuration for DOSSIER."""

from setuptools import find_packages, setup

setup(
    name="dossier-intel",
    version="0.3.0",
    description="Company and person intelligence assembled from many small provider queries",
    author="DOSSIER",
    python_requires=">=3.11",
    packages=find_packages(where="src", include=["dossier*"]),
    package_dir={"": "src"},
    install_requires=[
        "httpx>=0.27.0",
        "pydantic>=2.6.0",
        "pydantic-settings>=2.1.0",
    ],
    entry_points={
        "console_scripts": [
            "dossier=dossier.cli:cli_entry",
        ],
    },
    extras_require={
        "dev": [
            "pytest>=8.0.0",
            "pytest-asyncio>=0.23.0",
            "pytest-mock>=3.12.0",
            "respx>=0.21.0",
            "python-dotenv>=1.0.0",
        ],
    },
)
