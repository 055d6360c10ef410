# -*- coding: utf-8 -*-
"""Per-user folders used by deferral.

Two folders are used, both resolved by `appdirs` for the current platform:
 - the config folder, which holds ``deferral.ini`` (see `config`);
 - the log folder, where `log.Context` writes its log files.

A folder is created the first time its path is requested. Failing to create
it is not fatal: the caller will get an error when opening a file inside,
and can fall back to defaults.
"""

import errno
import logging
import os
import appdirs

_logger = logging.getLogger(__name__)

_appdirs = appdirs.AppDirs(appname='deferral', appauthor=False)


def _ensure_dir_exists(dir_path):
    try:
        os.makedirs(dir_path)
    except OSError as error:
        if error.errno != errno.EEXIST or not os.path.isdir(dir_path):
            _logger.warning('Unable to create the missing folder "%s"',
                            dir_path, exc_info=True)
    else:
        _logger.debug('Folder "%s" created', dir_path)


def _user_dir(attribute):
    dir_path = getattr(_appdirs, attribute)
    _ensure_dir_exists(dir_path)
    return dir_path


def get_config_dir():
    """Folder of the ``deferral.ini`` config file."""
    return _user_dir('user_config_dir')


def get_log_dir():
    """Folder of the files written by `log.Context`."""
    return _user_dir('user_log_dir')
