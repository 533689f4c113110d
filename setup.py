#!/usr/bin/env python3
#
# Copyright (c) 2020-2022 Tatu Ylonen.  See LICENSE and https://ylonen.org

from setuptools import setup

with open("README.md", "r") as f:
    long_description = f.read()

setup(name="wikirefs",
      version="0.1.0",
      description="Parser and rewriter for the citation markup of WikiText pages",
      long_description=long_description,
      long_description_content_type="text/markdown",
      author="Tatu Ylonen",
      author_email="ylo@clausal.com",
      license="MIT",
      scripts=[],
      packages=["wikirefs"],
      py_modules=["transform_refs"],
      python_requires=">=3.9",
      install_requires=["dateparser"],
      keywords=[
          "wikipedia",
          "wikitext",
          "references",
          "citations",
          "mediawiki",
      ],
      classifiers=[
          "Development Status :: 3 - Alpha",
          "Intended Audience :: Developers",
          "License :: OSI Approved :: MIT License",
          "Natural Language :: English",
          "Operating System :: POSIX :: Linux",
          "Programming Language :: Python",
          "Programming Language :: Python :: 3 :: Only",
          "Topic :: Text Processing",
          "Topic :: Text Processing :: Markup",
          ])
