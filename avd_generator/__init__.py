"""
avd_generator
-------------
Static content generator for the vulnerability / misconfiguration database site.
Each source (NVD, CVE list, Rego policies, kube-hunter docs, compliance specs)
is turned into one markdown page per record under content/.
"""

__version__ = "0.4.0"
