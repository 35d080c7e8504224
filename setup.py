from setuptools import setup


setup(
    name="voter-ingest",
    version="0.1.0",
    description="Bilingual voter-roll spreadsheet ingestion into MongoDB, with an HTTP API and CLI",
    packages=["voter_ingest"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "streamlit",
        "requests",
        "fastapi",
        "uvicorn",
        "python-multipart",
        "pydantic",
        "pymongo",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "ods": ["odfpy"],
        "all": ["xlrd", "odfpy"],
        "test": ["pytest", "httpx"],
    },
    entry_points={
        "console_scripts": [
            "voter-ingest=voter_ingest.cli:main",
        ]
    },
)
