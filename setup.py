from setuptools import setup, find_packages

setup(
    name="ebird-proxy",
    version="1.0.0",
    packages=find_packages(include=["ebird_proxy", "ebird_proxy.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "uvicorn>=0.27",
        "httpx>=0.27",
        "pydantic>=2.6",
        "pydantic-settings>=2.2",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "respx>=0.21",
        ],
    },
)
