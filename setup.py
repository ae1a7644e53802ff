from setuptools import setup, find_packages

setup(
    name         = 'osmcharging',
    version      = '1.0',
    packages     = find_packages(exclude=['tests', 'tests.*']),
    entry_points = {'scrapy': ['settings = osmcharging.settings']},
    include_package_data = True,
    python_requires = '>=3.12',
    install_requires = [
        'geojson',
        'pyproj',
        'scrapy',
        'shapely>=2.0',
    ],
    extras_require = {
        'test': ['pytest'],
    },
)
