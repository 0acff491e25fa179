from setuptools import setup
import os

HERE = os.path.dirname(os.path.abspath(__file__))


def read_requirements(filename='requirements.txt'):
    """Reads requirement specifiers from a requirements file, ignoring comments and pip options."""
    requirements = []
    with open(os.path.join(HERE, filename), 'r', encoding='utf-8') as f:
        for line in f:
            # Drop inline comments, then surrounding whitespace
            line = line.split('#', 1)[0].strip()

            # Blank lines and pip options (-r, -e, --index-url, ...) are not specifiers
            if not line or line.startswith('-'):
                continue

            requirements.append(line)

    return requirements

# Metadata lives in pyproject.toml; dependencies are declared dynamic there and
# resolved here from requirements.txt.
setup(
    install_requires=read_requirements(),
)
