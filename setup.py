from setuptools import setup, find_packages

setup(
    name='storysync',
    version='0.1.0',
    packages=find_packages(),
    entry_points={
        'console_scripts': [
            'storysync=storysync.cli:main',
        ],
    },
    install_requires=[
        'python-dotenv',
        'pyyaml',
        'requests',
        'click',
        'elasticsearch>=8,<9',
        'pydantic>=2',
        'fastapi',
        'uvicorn',
    ],
    extras_require={
        'test': [
            'pytest<9.1',
            'httpx',
        ],
    },
    author='While True Industries',
    author_email='adam@whiletrue.industries',
    description='Storyblok to Elasticsearch story sync',
    python_requires='>=3.10',
)
