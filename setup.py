from setuptools import setup, find_packages
import os

__location__ = os.path.realpath(os.path.join(os.getcwd(), os.path.dirname(__file__)))


def read_requirements():
    # parses requirements from requirements.txt
    reqs_path = os.path.join(__location__, 'requirements.txt')
    with open(reqs_path, encoding='utf8') as f:
        reqs = [line.strip() for line in f if line.strip() and not line.startswith('#')]
    return reqs

setup(name='searncoref',
      version='0.1.0',
      description='Incremental clustering for coreference resolution trained with imitation learning',
      url='https://github.com/deepmipt/deeppavlov',
      author='Neural Networks and Deep Learning lab, MIPT',
      author_email='deeppavlov@ipavlov.ai',
      license='Apache License, Version 2.0',
      packages=find_packages(exclude=('data', 'docs', 'downloads', 'utils', 'logs', 'tests', 'src')),
      include_package_data=True,
      install_requires=read_requirements(),
      extras_require={'test': ['pytest']},
      python_requires='>=3.6',
      keywords=['NLP',
                'natural language processing',
                'coreference resolution',
                'clustering',
                'imitation learning'],
      )
