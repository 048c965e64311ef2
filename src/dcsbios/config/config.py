import os
import platform

from configobj import ConfigObj, ConfigObjError, Section
from configobj.validate import Validator

from dcsbios.conduit.udp import DEFAULT_RECEIVE_IP, DEFAULT_RECEIVE_PORT, DEFAULT_SEND_IP, DEFAULT_SEND_PORT

# The default extension for configuration files
config_extension = '.cfg'

# the name of the configuration files shipped with this package
default_config_name = 'dcsbios'


def config_flavor(name, flavor=None):
    """
    >>> config_flavor('dcsbios')
    'dcsbios'
    >>> config_flavor('dcsbios', 'schema')
    'dcsbios.schema'
    """
    return name if not flavor else name + '.' + flavor


def config_filename(name, directory):
    """
    Determines the location of a config file in a directory.
    """
    return os.path.join(directory, name + config_extension)


def load_config_file_base(file, must_exist=True, **kwargs):
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
    :return: The ConfigObj instance for the file.
    """
    try:
        return ConfigObj(file, file_error=must_exist, **kwargs) \
            if must_exist or os.path.exists(file) else ConfigObj(**kwargs)
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def config_flavor_file(name, directory, subpart=None, **kwargs) -> ConfigObj:
    """
    Loads a specialization of a config file. The file is named after the base, followed by a period and
    the specialization if one is given. A missing file gives an empty configuration.
    """
    file = config_filename(config_flavor(name, subpart), directory)
    return load_config_file_base(file, False, **kwargs)


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    if name == 'darwin':
        name = 'osx'
    return name


def os_name():
    return map_os_name(platform.system())


def package_directory():
    """ the directory holding the configuration files shipped with the package """
    return os.path.dirname(os.path.abspath(__file__))


def load_config(name=default_config_name, directory=None, user_directory='~'):
    """
        Loads all the configuration files that relate to the given name.
        Configurations are merged in this order, later files overriding earlier ones:
        - the default specialization
        - the platform specialization
        - the user override
        - the local configuration
        The merged configuration is then validated against the "schema" specialization, which also converts
        values to their declared types and fills in defaults.
    :param directory: the location of the configuration files. Defaults to this package.
    :param user_directory: where to look for the user override.
    :raises ConfigObjError: if the configuration fails validation.
    """
    if directory is None:
        directory = package_directory()
    default_config = config_flavor_file(name, directory, 'default')
    platform_config = config_flavor_file(name, directory, os_name())
    user_config = load_config_file_base(os.path.join(os.path.expanduser(user_directory), name + config_extension),
                                        must_exist=False)
    local_config = config_flavor_file(name, directory)
    config = ConfigObj()
    config.merge(default_config)
    config.merge(platform_config)
    config.merge(user_config)
    config.merge(local_config)

    config.configspec = config_flavor_file(name, directory, 'schema', _inspec=True)
    result = config.validate(Validator(), preserve_errors=True)
    if result is not True:
        raise ConfigObjError("the config file %s failed validation %s" % (name, result))
    return config


def fetch_conf_path(conf: Section, path):
    """
    Retrieves the named configuration section
    :param conf:        The root configuration
    :param path:   An iterable that lists the names of the sections to resolve
    :return: The configuration section identified by the path, or None.
    """
    for p in path:
        conf = conf.get(p, None)
        if conf is None:
            return None
    return conf


def apply_conf(conf: Section, target):
    """
    Applies the values in a configuration section to a target object, by setting any attributes with the same name.
    Values without a matching attribute are ignored.
    """
    for k, v in conf.items():
        if hasattr(target, k):
            setattr(target, k, v)
    return target


def apply_conf_path(conf: Section, path, target):
    """
    Applies the section at a dotted path to a target object.
    """
    section = fetch_conf_path(conf, path.split('.'))
    if section:
        apply_conf(section, target)
    return target


class TransportSettings:
    """
    The settings used to construct a DcsBiosTransport. The defaults match DCS-BIOS.
    """
    def __init__(self):
        self.receive_ip = DEFAULT_RECEIVE_IP
        self.receive_port = DEFAULT_RECEIVE_PORT
        self.send_ip = DEFAULT_SEND_IP
        self.send_port = DEFAULT_SEND_PORT
        self.decode = True
        self.pass_through = False
        self.throttle_period = 0.01
        self.receive_timeout = 0.2


def load_settings(name=default_config_name, directory=None, user_directory='~', path='transport'):
    """
    Loads the transport settings from the layered configuration files.
    :return: a TransportSettings instance.
    """
    conf = load_config(name, directory, user_directory)
    return apply_conf_path(conf, path, TransportSettings())
