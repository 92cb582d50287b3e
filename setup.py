from setuptools import setup, find_packages

setup(
    name="celebrity-reel-pipeline",
    version="0.1.0",
    description="Asynchronous generation pipeline for short celebrity video reels",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "pillow>=10.1.0",
        "requests>=2.31.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "python-dotenv>=1.0.0",
        "structlog>=23.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "hypothesis>=6.82.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "reel-pipeline=reel_pipeline.cli:main",
        ],
    },
)
