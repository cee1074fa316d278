"""Setup configuration for TabScan, the Minecraft nickname scanner."""

from setuptools import setup, find_packages

setup(
    name="tabscan",
    version="0.0.1",
    description="Minecraft online-player nickname moderation with rules and AI",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "openai>=1.0",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
        "prompt_toolkit>=3.0",
        "jsonschema>=4.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "tabscan=tabscan.main:main",
        ],
    },
)
