import os
from setuptools import setup, find_packages

here = os.path.abspath(os.path.dirname(__file__))

with open(os.path.join(here, 'README.rst')) as f:
    README = f.read()

with open(os.path.join(here, 'CHANGES.txt')) as f:
    CHANGES = f.read()

requires = ['repoze.who', 'zope.interface', 'setuptools']

setup(name='digestguard',
      version='0.1.0',
      description='digestguard',
      long_description=README + '\n\n' + CHANGES,
      classifiers=[
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Topic :: Internet :: WWW/HTTP :: WSGI :: Middleware",
        ],
      author='Mozilla Services',
      author_email='services-dev@mozilla.org',
      keywords='authentication authorization wsgi http digest',
      packages=find_packages(),
      include_package_data=True,
      zip_safe=False,
      python_requires='>=3.7',
      install_requires=requires,
      extras_require={'test': ['pytest']},
      entry_points="""\
      [paste.filter_app_factory]
      main = digestguard:make_pipeline
      """,
      test_suite="digestguard.tests")
