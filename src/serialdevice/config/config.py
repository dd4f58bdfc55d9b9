import os
import platform

from configobj import ConfigObj, ConfigObjError, flatten_errors
from validate import Validator

# The default extension for configuration files
config_extension = '.cfg'


def config_flavor(name, flavor=None):
    """
    The name of a flavored configuration, e.g. 'bench.default' or 'bench.linux'.
    >>> config_flavor('bench', 'osx')
    'bench.osx'
    """
    return name + '.' + flavor if flavor else name


def config_filename(name, directory=None):
    """ the path of the named configuration file in the directory """
    return os.path.join(directory or '', name + config_extension)


def load_config_file_base(file, must_exist=True):
    """
    Reads one configuration file.
    :param must_exist: when False, a missing file reads as an empty configuration.
    :raises ConfigObjError: for syntax errors, with the file name appended to the message.
    """
    if not must_exist and not os.path.exists(file):
        return ConfigObj()
    try:
        return ConfigObj(file, interpolation='Template', file_error=True)
    except ConfigObjError as e:
        raise type(e)("%s at %s" % (e, file)) from e


def config_flavor_file(name, directory, flavor=None) -> ConfigObj:
    """ reads <name>[.<flavor>].cfg from the directory, empty when there is no such file. """
    return load_config_file_base(config_filename(config_flavor(name, flavor), directory), must_exist=False)


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    return 'osx' if name == 'darwin' else name


def os_name():
    return map_os_name(platform.system())


def config_layers(name, directory):
    """
    The configurations for a name, lowest precedence first:
    the default flavor, the platform flavor, the user's home override and finally the plain file.
    """
    return [
        config_flavor_file(name, directory, 'default'),
        config_flavor_file(name, directory, os_name()),
        load_config_file_base(os.path.join(os.path.expanduser('~'), name + config_extension), must_exist=False),
        config_flavor_file(name, directory),
    ]


def describe_errors(config, result):
    """ renders the failures reported by ConfigObj.validate() as text """
    failures = []
    for sections, key, error in flatten_errors(config, result):
        where = '.'.join(sections + ([key] if key is not None else []))
        failures.append("%s: %s" % (where, error if error else 'missing'))
    return ", ".join(failures)


def load_config(name, directory, configspec=None):
    """
    Merges the layers of a named configuration and validates the result, converting values
    to the types given in the schema and filling in its defaults.
    :param directory: where the configuration files are
    :param configspec: the schema file, by default <name>.schema.cfg in the same directory.
    :raises ConfigObjError: when the merged configuration does not satisfy the schema.
    """
    config = ConfigObj()
    for layer in config_layers(name, directory):
        config.merge(layer)

    if configspec is None:
        configspec = config_filename(config_flavor(name, 'schema'), directory)
    config.configspec = ConfigObj(configspec, raise_errors=True, file_error=True, _inspec=True)
    result = config.validate(Validator(), preserve_errors=True)
    if result is not True:
        raise ConfigObjError("the config file %s failed validation %s" % (name, describe_errors(config, result)))
    return config
