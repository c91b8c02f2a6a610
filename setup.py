import setuptools

setuptools.setup(
  name="trxread",
  version="0.1.0",
  description="Reader for TRX tractography files.",
  long_description=open("README.md").read(),
  long_description_content_type="text/markdown",
  python_requires=">=3.8",
  packages=setuptools.find_packages(include=["trxread", "trxread_cli"]),
  install_requires=[
    "numpy",
    "click",
    "tqdm",
  ],
  extras_require={
    "test": [
      "pytest",
    ],
  },
  entry_points={
    "console_scripts": [
      "trxread=trxread_cli:main"
    ],
  },
  classifiers=[
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Topic :: Scientific/Engineering",
  ],
)
