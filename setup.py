from setuptools import setup, find_packages


with open('README.md') as f:
    readme = f.read()

setup(
    name='routerprobe',
    version='0.1.0',
    description='Convergence polling for OpenShift router end-to-end tests',
    long_description=readme,
    long_description_content_type='text/markdown',
    author='',
    author_email='',
    url='',
    python_requires='>=3.10',
    package_dir={'': 'src'},
    packages=find_packages('src', exclude=('tests', 'docs')),
    install_requires=[
        'kubernetes',
        'requests',
        'urllib3',
        'PyYAML',
        'deepdiff',
        'psutil',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'routerprobe=routerprobe.main:main',
        ],
    },
)
