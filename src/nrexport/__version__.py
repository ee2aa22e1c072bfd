# -*- coding: utf-8 -*-

__title__ = "nrexport"
__description__ = "Flattening metrics reporter for New Relic custom metrics."
__url__ = ""
__version__ = "0.1.0"
__author__ = "The nrexport Authors"
__author_email__ = ""
__license__ = "MIT"
