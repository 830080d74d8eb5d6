"""
Setup script for the lead persona ranker.

Allows development installation with `pip install -e .`
"""

from setuptools import setup, find_packages

setup(
    name="leadrank",
    version="0.3.0",
    packages=find_packages(include=["leadrank", "leadrank.*"]),
    python_requires=">=3.11",
    install_requires=[
        "python-dotenv>=1.0",
        "tenacity>=8.2",
        "httpx>=0.27",
        "numpy>=1.26",
        "pydantic>=2.5",
        "langchain-core>=0.3",
        "langchain-openai>=0.2",
        "langchain-anthropic>=0.2",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
)
