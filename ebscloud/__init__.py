"""EBS volume and snapshot management over an injectable EC2 client."""

__version__ = "0.1.0"