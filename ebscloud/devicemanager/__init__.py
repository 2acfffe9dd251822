"""Device name allocation and tracking of in-flight attachments."""