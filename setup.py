from setuptools import setup


setup(
    name="comprev-match",
    version="0.1.0",
    description="Cross-check a COMPREV general base against pensioner and retiree spreadsheets by CPF",
    packages=["comprev_match"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "streamlit",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "ods": ["odfpy"],
        "all": ["xlrd", "odfpy"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "comprev-match=comprev_match.cli:main",
        ]
    },
)
