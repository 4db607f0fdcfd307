from setuptools import setup, find_packages

import version

setup(
    name="xapi-websocket",
    packages=find_packages(exclude=("test",)),
    version=version.version,
    license="LGPLv3",
    install_requires=[
        "typedargs>=1.0.0,<2",
        "websockets>=11",
        "jsonpath-ng>=1.5",
        "PyYAML>=5.1"
    ],
    extras_require={
        'test': ["pytest>=6"]
    },
    python_requires=">=3.8,<4",
    entry_points={
        'console_scripts': [
            'xapi-timer = xapi_websocket.scripts.timer:main'
        ]
    },
    description="Websocket JSON-RPC client for video conferencing device xAPI",
    keywords=["xapi", "websocket", "jsonrpc", "video", "conferencing"],
    classifiers=[
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Development Status :: 3 - Alpha",
        "License :: OSI Approved :: GNU Library or Lesser General Public License (LGPL)",
        "Operating System :: OS Independent",
        "Topic :: Software Development :: Libraries :: Python Modules"
        ],
    long_description="""\
xAPI Websocket Client
---------------------

A python client for the xAPI control and telemetry protocol spoken by video
conferencing devices over websockets.  Commands are correlated with their
replies and device feedback events are routed to subscribed callbacks.
"""
)
