# -*- encoding: utf-8 -*-
from setuptools import setup, find_packages

with open('README.rst', 'r', encoding='utf-8') as fh:
    long_description = fh.read()


def get_version(package_path):
    import os
    from importlib.util import module_from_spec, spec_from_file_location
    spec = spec_from_file_location('version', os.path.join('src', package_path, '_version.py'))
    module = module_from_spec(spec)
    spec.loader.exec_module(module)
    return module.__version__


version = get_version('multikueue')

setup(
    name='multikueue-adapter',
    version=version,
    description='Keeps copies of batch and Kubeflow jobs in worker clusters in sync with a manager cluster',
    long_description=long_description,
    long_description_content_type='text/x-rst',
    classifiers="""Development Status :: 3 - Alpha
Environment :: Console
Intended Audience :: System Administrators
License :: OSI Approved :: Apache Software License
Operating System :: POSIX
Programming Language :: Python :: 3
Topic :: System :: Clustering
""" [:-1].split('\n'),
    keywords='kubernetes kueue kubeflow multi-cluster',
    license='Apache-2.0',
    packages=find_packages('src', exclude=['*.tests', '*.tests.*']),
    package_dir={
        '': 'src',
    },
    package_data={
        'multikueue': ['schemas/*/*.yaml'],
    },
    zip_safe=False,
    install_requires=[
        'PrettyTable>=0.7.2',
        'pykube-ng>=20.1.0',
        'requests>=2.20.0',
        'ruamel.yaml>=0.17',
        'argcomplete>=1.9.4',
        'cerberus>=1.3,<2',
        'semantic_version>=2.8.0,<3',
        'structlog>=20.1.0',
        'colorama>=0.4.1,<1',
    ],
    extras_require={
        'dev': ['parameterized'],
    },
    python_requires='>=3.7',
    entry_points="""
        [console_scripts]
            multikueue-adapter = multikueue.scripts.multikueue_adapter:main
    """,
)
