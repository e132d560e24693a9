from setuptools import find_packages, setup


def read_requirements(name: str) -> list[str]:
    with open(f"requirements/{name}.txt") as rfp:
        return [i for i in rfp.read().split("\n") if not (i.startswith("#") or len(i) == 0)]


setup(
    name="gatehouse",
    version="1.0.0",
    author="gatehouse",
    packages=find_packages(include=["gproject", "gproject.*", "gserver", "gserver.*"]),
    package_data={"gserver": ["tests/fixtures/ldap/*.json"]},
    python_requires=">=3.10",
    install_requires=read_requirements("common"),
    extras_require={
        "ldap": read_requirements("ldap"),
        "test": read_requirements("ldap") + read_requirements("test"),
    },
)
