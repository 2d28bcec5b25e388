"""
Setup script for the mixer command bridge.
"""
from setuptools import setup, find_namespace_packages

setup(
    name='mixer-command-bridge',
    version='1.0.1',
    description='Bridge between browser control surfaces and a binary audio-interface mixer protocol',
    author='MControl',
    author_email='',
    url='',
    packages=find_namespace_packages(include=['config', 'model', 'controller', 'utils']),
    py_modules=['app'],
    install_requires=[
        'python-osc>=1.8.1,<2.0.0',
        'websocket-client>=1.6.0,<2.0.0',
    ],
    extras_require={
        'test': ['pytest>=7.0'],
    },
    entry_points={
        'console_scripts': [
            'mixer-bridge=app:main',
        ],
    },
    python_requires='>=3.8',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: End Users/Desktop',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Topic :: Multimedia :: Sound/Audio',
        'Topic :: Multimedia :: Sound/Audio :: Mixers',
    ],
)
