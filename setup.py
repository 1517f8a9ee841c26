from setuptools import setup, find_packages

setup(
    name="tmplstack",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "jinja2>=3.1.2",
        "typer>=0.9.0",
        "rich>=13.0.0",
        "pyyaml>=6.0",
        "pydantic>=2.0.0,<3.0.0",
        "typing-extensions>=4.0.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
        "dev": [
            "pytest>=7.0",
            "black>=23.0",
            "isort>=5.0",
            "mypy>=1.0"
        ]
    },
    entry_points={
        "console_scripts": [
            "tmplstack=tmplstack.cli:app",
        ],
    },
    python_requires=">=3.9",
    description="Layout inheritance and live reloading for Jinja2 template sets",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
