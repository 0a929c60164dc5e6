""" Logging configuration for the scoring engine.

You can override the settings in drscore_logging_config.py by copying the whole
file to drscore_logging_override.py. The original settings in
drscore_logging_config.py should be useful defaults for developers, with extra
settings available for production use, but disabled.

For a detailed description of the settings, see the Python documentation:
https://docs.python.org/3/library/logging.config.html#logging-config-dictschema

Do not commit drscore_logging_override.py to source control.
"""

# Only the drscore-resistance command applies this configuration, so code that
# imports drscore as a library never writes to this file. Point it somewhere
# like /var/log/drscore/drscore.log when the command runs on a server.
LOG_FILE = '/tmp/drscore.log'

LOGGING = {
    # This is the default logger.
    'root': {'handlers': ['console', 'file'],
             'level': 'INFO'},
    'loggers': {
        "__main__": {"level": "INFO"},

        # Set to DEBUG to see each scorer as it is built.
        "drscore.resistance.scorer": {"level": "INFO"},
    },

    # This lets you call logging.getLogger() before the configuration is done.
    'disable_existing_loggers': False,

    'version': 1,
    'formatters': {'basic': {
        'format': '%(asctime)s[%(levelname)s]%(name)s.%(funcName)s(): %(message)s',
        'datefmt': '%Y-%m-%d %H:%M:%S'}},
    'handlers': {'console': {'class': 'logging.StreamHandler',
                             'level': 'DEBUG',
                             'formatter': 'basic'},
                 'file': {'class': 'logging.handlers.RotatingFileHandler',
                          'level': 'DEBUG',
                          'formatter': 'basic',
                          'filename': LOG_FILE,
                          'maxBytes': 1024*1024*15,  # 15MB
                          'backupCount': 10}},
}
