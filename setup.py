import setuptools

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()


setuptools.setup(
    name="workerbench",
    version="0.1.0",
    description="Multi-worker HTTP responder for comparing process cluster modes",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="Apache License 2.0",
    python_requires=">=3.10.0",
    install_requires=[
        "attrs>=22.2",
        "fastapi>=0.100,<1",
        "structlog>=23.1",
        "uvicorn[standard]>=0.23,<1",
    ],
    extras_require={
        "test": [
            "httpx",
            "hypothesis",
            "pytest",
            "pytest-timeout",
        ],
    },
    entry_points={
        "console_scripts": [
            "workerbench=workerbench.server.http:main",
        ],
    },
    packages=setuptools.find_packages(include=["workerbench", "workerbench.*"]),
)
