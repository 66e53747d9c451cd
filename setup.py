"""Setup configuration for e2e-harness package."""

from setuptools import setup, find_packages

setup(
    name="e2e-harness",
    version="0.1.0",
    description="Browser-driven UI verification harness built on Playwright",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0.0",
        "python-dotenv>=1.0.0",
        "playwright>=1.40.0",
        "click>=8.1.0",
        "rich>=13.0.0",
        "pyyaml>=6.0",
        "httpx>=0.25.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "pytest-mock>=3.11.0",
            "ruff>=0.1.0",
            "mypy>=1.5.0",
            "black>=23.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "e2e-harness=e2e_harness.cli.app:main",
        ],
    },
)
