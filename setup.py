#!/usr/bin/env python
from setuptools import setup
setup(
    name='mimebatch',
    version='1.0',
    description='Multipart HTTP Request Batching',
    author='Six Apart',
    author_email='python@sixapart.com',

    packages=['mimebatch'],
    install_requires=['httplib2>=0.20'],
    extras_require={'test': ['pytest']},
)
