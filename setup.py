#!/usr/bin/env python

import setuptools

setuptools.setup(
    name="pagevoice",
    version="0.3.0",
    author="Pagevoice contributors",
    description="Viewport-aware read-aloud engine for web-based e-book readers.",
    packages=setuptools.find_packages(include=["pagevoice", "pagevoice.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    install_requires=['numpy>=1.18.2',
                      'soundfile>=0.12.1',
                      'sounddevice>=0.4.6',
                      'termcolor>=2.0',
                      'colorama>=0.4.6; platform_system=="Windows"',
                      'beautifulsoup4>=4.12',
                      ],
    extras_require={
        'gui': ['qtpy>=2.0', 'PyQt5>=5.15', 'PyQtWebEngine>=5.15'],
        'test': ['pytest>=7.0'],
    },
    python_requires='>=3.9',

    entry_points={
        'console_scripts': [
            'pagevoice-read = pagevoice.cli:main',
        ],
    },


)
