"""
Ruckus DPSK Manager Setup
Installation configuration for the DPSK manager CLI and MCP server
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="ruckus-dpsk-manager",
    version="1.0.0",
    description="Manage Dynamic PSKs on Ruckus Unleashed controllers through the web console's AJAX interface",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["dpsk_manager", "dpsk_manager.*"]),
    python_requires=">=3.10",
    install_requires=[
        "requests>=2.28.0",
        "pydantic>=2.0.0",
        "xmltodict>=0.13.0",
        "colorlog>=6.0.0",
        "mcp>=1.0.0,<2",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ruckus-dpsk-manager=dpsk_manager.cli:main",
            "ruckus-dpsk-mcp=dpsk_manager.server:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "Topic :: System :: Networking",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="ruckus unleashed dpsk wifi wpa2 psk",
)
