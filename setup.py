"""
SiteAuditor - website technical, performance, visual and accessibility audits
"""
from setuptools import find_packages, setup

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="siteauditor",
    version="0.1.0",
    description="Multi-page website audits with a weighted health score",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(
        include=[
            "core",
            "core.*",
            "database",
            "database.*",
            "d0_gateway",
            "d0_gateway.*",
            "d1_discovery",
            "d1_discovery.*",
            "d2_scanner",
            "d2_scanner.*",
            "d3_assessment",
            "d3_assessment.*",
            "d4_orchestration",
            "d4_orchestration.*",
            "d5_scoring",
            "d5_scoring.*",
            "d9_delivery",
            "d9_delivery.*",
        ]
    ),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Internet :: WWW/HTTP :: Site Management",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.11",
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "siteauditor=core.cli:main",
        ],
    },
    include_package_data=True,
)
