# Services package
# Domain logic shared by the HTTP routes and the socket handlers
