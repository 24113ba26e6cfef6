#!/usr/bin/env python3
"""
Setup configuration for release-bot
Keeps a Spotify playlist filled with new releases from the artists you track
"""

from setuptools import setup, find_packages

# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Core requirements (always installed)
core_requirements = [
    "spotipy>=2.23.0",
    "requests>=2.31.0",
    "click>=8.1.7",
    "rich-click>=1.7.0",
    "pyyaml>=6.0.1",
    "tqdm>=4.66.1",
    "python-dotenv>=1.0.0",
]

setup(
    name="spotify-release-bot",
    version="0.1.0",
    author="release-bot",
    description="Scan tracked artists for new releases and add them to a Spotify playlist",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["release_bot", "release_bot.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio",
    ],
    python_requires=">=3.10",
    install_requires=core_requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.3",
        ],
    },
    entry_points={
        "console_scripts": [
            "release-bot=release_bot.cli:main",
        ],
    },
    keywords="spotify playlist new releases artists bot cli",
)
