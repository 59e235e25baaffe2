"""adfsfed - federate a DNS domain with AD FS against a cloud directory tenant."""

__version__ = "0.1.0"
