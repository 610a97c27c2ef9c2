"""Encrypted Config Meta information.
   Encrypted Config decrypts prefixed values of a configuration tree once
   and serves the plaintext copy to every caller.
"""
__title__ = 'encrypted_config'
__description__ = (
   'Decrypt-once-and-cache access to configuration trees '
   'holding encrypted values.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/encrypted-config'
