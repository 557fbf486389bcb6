import setuptools

requirements = [
    "discord.py>=2.4",
    "SQLAlchemy>=2.0",
    "PyYAML",
    "typer",
    "pytimeparse2",
]

test_requirements = [
    "pytest",
    "pytest-asyncio",
]

packages = setuptools.find_namespace_packages(where=".", include=["Formular", "Formular.*"])
if not packages:
    raise ValueError("No packages detected.")

setuptools.setup(
    name="Formular",
    version="0.1.0",
    packages=packages,
    py_modules=["cli"],
    package_data={"Formular.locales": ["*.yaml"]},
    install_requires=requirements,
    extras_require={"test": test_requirements},
    entry_points={"console_scripts": ["formular=cli:bot"]},
    python_requires=">=3.11",
    license="GNU General Public License v3.0",
    description="Discord forms with modal dialogs, cooldowns and private submission threads",
    zip_safe=False,
)
